"""Built-in receipt texts for test mode (no OCR, LLM or cache calls)."""

HOME_DEPOT = """THE HOME DEPOT
HOW DOERS GET MORE DONE
PACES FERRY RD ATLANTA GA
06/15/2024 14:32
HAMMER 16OZ                 12.99
PAINT ROLLER 9IN             8.47
WOOD SCREWS 2 @ 3.98         7.96
SUBTOTAL                    29.42
SALES TAX 7%                 2.06
TOTAL                       31.48
VISA ****1234               31.48
THANK YOU FOR SHOPPING
"""

WALMART = """Walmart
Save money. Live better.
WAL-MART SUPERCENTER #4521
ST# 4521 OP# 00001 TE# 12 TR# 09876
01/20/2024
BANANAS 0.59/LB              1.18
MILK GALLON                  3.48
BREAD WHEAT                  2.50
SUBTOTAL                     7.16
TAX                          0.00
TOTAL                        7.16
CASH TEND                   10.00
CHANGE DUE                   2.84
"""

SAMPLE_DOCUMENTS = {
    "home_depot": HOME_DEPOT,
    "walmart": WALMART,
}

# Overview: Fixed-point column types for money, metal weights and percentages.

from ..extensions import db

# Rupees to the paisa; read back as float
Money = db.Numeric(14, 2, asdecimal=False)

# Grams to the milligram
Weight = db.Numeric(12, 3, asdecimal=False)

# Chit gold is credited to a tenth of a milligram
FineWeight = db.Numeric(12, 4, asdecimal=False)

Percent = db.Numeric(7, 3, asdecimal=False)

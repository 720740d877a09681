TARGET_COL = "claim_count"
EXPOSURE_COL = "exposure"
ID_COL = "policy_id"

MAX_EXPOSURE = 1.0
MAX_CLAIM_COUNT = 4

CATEGORICAL_FEATURES = [
    "area",
    "vehicle_brand",
    "vehicle_gas",
    "region",
]

NUMERIC_FEATURES = [
    "vehicle_power",
    "vehicle_age",
    "driver_age",
    "bonus_malus",
    "density",
]

OTHER_THRESHOLD = 0.05
OTHER_LABEL = "other"

GLM_ALPHA = 0.0
GLM_MAX_ITER = 300

N_FOLDS = 10
SEED = 42

PRIMARY_METRIC = "mean_poisson_deviance"
METRIC_DIRECTION = "minimize"

# freMTPL2freq column names -> project names
RAW_COLUMN_MAP = {
    "IDpol": ID_COL,
    "ClaimNb": TARGET_COL,
    "Exposure": EXPOSURE_COL,
    "Area": "area",
    "VehPower": "vehicle_power",
    "VehAge": "vehicle_age",
    "DrivAge": "driver_age",
    "BonusMalus": "bonus_malus",
    "VehBrand": "vehicle_brand",
    "VehGas": "vehicle_gas",
    "Density": "density",
    "Region": "region",
}

from enum import IntEnum
from pathlib import Path

import miplata

#
# Filesystem
#

PACKAGE_DIR = Path(miplata.__file__).parent
CONSTRUCTOR_PARAMS_DIR = PACKAGE_DIR / "constructor_params"
ARTIFACTS_DIR = PACKAGE_DIR / "artifacts"

DEFAULT_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "base-sepolia.yml"

#
# Networks
#

LOCAL_NETWORKS = ["local"]

#
# Contracts
#

MIPLATA = "MiPlata"

DEPLOYER_ROLE = "deployer"

#
# Investment types as defined in the MiPlata contract
#


class InvestmentType(IntEnum):
    RISKY = 0
    MODERATE = 1
    CONSERVATIVE = 2


INVESTMENT_TYPE_LABELS = {
    InvestmentType.RISKY: "Risky",
    InvestmentType.MODERATE: "Moderate",
    InvestmentType.CONSERVATIVE: "Conservative",
}

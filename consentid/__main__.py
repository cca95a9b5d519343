"""python -m consentid"""

import sys

from consentid.cli import main

sys.exit(main())

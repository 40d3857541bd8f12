"""Allow ``python -m constgen``."""

import sys

from constgen.main import main

sys.exit(main())

"""Allow running as: python -m agreement_assembly"""

import sys

from agreement_assembly.main import main

if __name__ == "__main__":
    sys.exit(main())

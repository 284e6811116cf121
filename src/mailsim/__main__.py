"""Allow running as: python -m mailsim"""

import sys

from .interface.cli import main

sys.exit(main())

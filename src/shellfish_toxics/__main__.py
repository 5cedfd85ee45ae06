import sys

from shellfish_toxics.cli import main

sys.exit(main())

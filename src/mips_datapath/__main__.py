import sys

from mips_datapath.cli import main

sys.exit(main())

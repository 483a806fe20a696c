import sys

from qjsbuild.cli import main

sys.exit(main())

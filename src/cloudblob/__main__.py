import sys

from cloudblob.cli import main

sys.exit(main())

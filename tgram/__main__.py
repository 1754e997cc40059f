import sys

from tgram.cli import main

sys.exit(main())

import sys

from systemctl.main import main

sys.exit(main())

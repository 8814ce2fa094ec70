import sys

from installer.main_installer import main

sys.exit(main())

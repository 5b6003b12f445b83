import sys

from buildrun.main import main

if __name__ == "__main__":
    sys.exit(main())

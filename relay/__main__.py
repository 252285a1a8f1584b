import sys

from relay.relay import main

sys.exit(main())

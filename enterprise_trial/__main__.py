import sys

from enterprise_trial.main import main

sys.exit(main())

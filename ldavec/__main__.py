import sys

import ldavec.lda_example

sys.exit(ldavec.lda_example.main())

"""
Entry point for running the pipeline as a module: python -m exam_eval
"""

import sys
from exam_eval.cli import main

if __name__ == "__main__":
    sys.exit(main())

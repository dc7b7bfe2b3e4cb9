import os
import sys

# Allow running from a checkout without installing the package
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from hotel_crawler.main import main

if __name__ == '__main__':
    sys.exit(main())

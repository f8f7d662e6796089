"""cargo-test-stream entry point.

Supports: python -m cargo_test_stream
"""

from .app import main

if __name__ == "__main__":
    main()

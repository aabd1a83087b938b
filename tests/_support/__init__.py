"""
Test support utilities for berth tests.

The fake driver records every command instead of launching it, so the job
pipeline can be exercised without a docker daemon.
"""

"""
Mortgage Platform Unit Tests
============================

This package contains unit tests for the mortgage simulation engine and its
configuration.

Test Modules
------------
test_rates
    Tests for annual/monthly rate conversion.
test_schedule
    Tests for French-method schedule generation and insurance charges.
test_grace
    Tests for partial and total grace periods.
test_indicators
    Tests for NPV, IRR and TCEA.
test_policy
    Tests for down payment, financing, NCMV and bonus rules.
test_currency
    Tests for PEN/USD conversion.
test_simulation
    End-to-end tests for the simulation orchestrator.
test_config
    Tests for environment-driven settings.

Running Tests
-------------
Execute all tests with pytest::

    pytest mortgage_platform/unit_tests/ -v

Or run specific test modules::

    pytest mortgage_platform/unit_tests/test_schedule.py -v
"""

"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the course marketplace ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Token supply equals the sum of balances, on both ledgers
2. atomicity.py - Purchases, swaps and batches apply fully or not at all
3. idempotency.py - A student pays for a course at most once
4. course_lifecycle.py - Sequential ids, toggle involution, enrollment counts
5. fee_bounds.py - Fee split arithmetic and the platform fee cap
6. serialization.py - Re-entry rejection and a total order under threads

These tests use hypothesis for property-based testing.
"""

"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the staking ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Double-entry accounting and receipt backing
2. atomicity.py - All-or-nothing operations
3. idempotency.py - Duplicate execution handling
4. determinism.py - Reproducible behavior (replay, clone, reruns)
5. canonicalization.py - Content-addressable identity
6. temporal.py - Block clock and event ordering

These tests use hypothesis for property-based testing.
"""

"""
galaxykeys
==========
Batch provisioning of a pod/role SSH keyring sealed to a single root identity.

Provides:
- Slot planning over a two-level (pod, role) namespace
- Keypair generation with bounded retry
- Encrypted store entries and plaintext public key artifacts
- A sequential orchestrator with strict/lenient abort tiers
"""

__version__ = "0.1.0"

"""
Document Control module.

GMP alignment (lightweight):
- Documents carry a lifecycle status that only changes by explicit request
- Each revision runs its document's workflow; decisions are append-only
- Signature-gated steps capture an electronic signature bound to the performer
- Every state change is recorded to the append-only audit trail
"""

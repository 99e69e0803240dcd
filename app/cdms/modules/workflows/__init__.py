"""
Workflow templates: strictly sequential approval steps, each bound to one
performer role and an optional electronic-signature mandate.
"""

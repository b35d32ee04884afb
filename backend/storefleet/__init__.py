"""
Storefleet backend: tenant entitlements and location lifecycle.
"""

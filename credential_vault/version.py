"""Credential Vault Meta information.
   Credential Vault keeps banking PINs and passwords encrypted under
   a key derived from a master password.
"""
__title__ = 'credential_vault'
__description__ = (
   'Client-side encrypted vault for banking credentials, '
   'keyed by a master password.'
)
__version__ = '0.3.0'
__license__ = 'Apache-2.0'

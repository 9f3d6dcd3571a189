"""
Accounts.

Holds the email-identified User every payment, enrollment and CPF record
points at. JWT access/refresh tokens are issued by simplejwt at
/api/v1/auth/token/ (refresh tokens rotate and are blacklisted after use).
"""

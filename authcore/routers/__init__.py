"""
Routers module - API endpoint handlers organized by feature.

- auth: registration, sign-in, sign-out
- users: current user profile
- admin: role-guarded user management
- calendar_auth: calendar OAuth connect / callback / status / disconnect
- calendar: calendar reads on behalf of the signed-in user
"""

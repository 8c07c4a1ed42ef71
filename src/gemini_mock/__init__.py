"""
Gemini Mock package.

Provides:
- A local mock of the Gemini generateContent / streamGenerateContent API
- Postman workspace tooling (collection validator, API update checker)
"""

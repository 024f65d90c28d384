"""
Services layer - Business logic goes here.
Keep services focused on specific domains (stores, workflow, geocoding).

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Stores wrap one Firestore collection each
- The crime report service is the only place that writes across collections
"""

"""
Face Identity Verification

Registers identities with a single reference face and verifies claimed
identities against it using:
- DeepFace (Dlib ResNet) for face embeddings
- Euclidean distance with a 0.6 acceptance threshold
- FastAPI for the RESTful API
- SQLAlchemy (async) for identity storage
"""

__version__ = "1.0.0"

# src/api/__init__.py
# =====================
# API Layer — VoicePrep
#
# Responsibility:
#   - POST /api/v1/normalize-audio — audio upload → normalized WAV
#   - POST /api/v1/transcribe      — audio upload → recognized text
#   - Translate typed pipeline errors into JSON error responses

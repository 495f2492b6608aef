"""HTTP service exposing transcription, enhancement and audio storage."""

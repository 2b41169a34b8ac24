"""Twilio SMS integration: inline TwiML replies, outbound sends, signature checks."""

"""
Twilio voice webhooks: status callbacks and call-control TwiML.
"""

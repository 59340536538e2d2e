"""Tracking of received and missing sequence numbers."""
"""Packet ordering and playout buffering."""
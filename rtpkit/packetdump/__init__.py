"""Dumping of RTP and RTCP packets to text streams."""
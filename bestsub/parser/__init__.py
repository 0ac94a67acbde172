"""Decoding of subscription data and proxy share links."""
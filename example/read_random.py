"""
Example usage of the random read/write functions

Reads a few scattered data registers as words, doublewords and reals in one
request per width.
"""

import logging

from melsec import Client, DeviceType

logging.basicConfig(level=logging.INFO)

client = Client("192.168.3.39", 5000, use_tcp=True, keep_connection=True)

client.write_words_random([100, 110, 120], [1, 2, 3], DeviceType.D)
print(client.read_words_random([100, 110, 120], DeviceType.D))

# doubleword and real values occupy two consecutive registers
client.write_dwords_random([200, 210], [100000, 200000], DeviceType.D)
print(client.read_dwords_random([200, 210], DeviceType.D))

client.write_reals_random([300, 310], [1.5, 2.5], DeviceType.D)
print(client.read_reals_random([300, 310], DeviceType.D))

client.destroy()

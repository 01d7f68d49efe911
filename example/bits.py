"""
Example of bit access

Bit arrays longer than one state are packed two per byte and need an even
length.
"""

from melsec import Client, DeviceType

with Client("192.168.3.39", 5000) as client:
    client.write_bit(0, True, DeviceType.M)
    client.write_bits(10, [True, False, True, True], DeviceType.M)
    print(client.read_bits(10, DeviceType.M, 4))

    # scattered points
    client.write_bits_random([1, 20, 300], [True, True, False], DeviceType.Y)
    print(client.read_bits_random([1, 20, 300], DeviceType.Y))

    print(client.read_cpu_model_name())

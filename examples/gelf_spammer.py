import random
import socket
import time

from gelfix_input.chunks import chunk_payload, encode_message


def send_gelf(host: str, port: int, fields: dict, chunk_size: int = 1420):
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    for datagram in chunk_payload(encode_message(fields), chunk_size):
        sock.sendto(datagram, (host, port))
    sock.close()


def main():
    target = ("127.0.0.1", 12201)

    i = 0
    while True:
        i += 1

        # small flat message, then a large nested one that needs chunking
        short = {
            "version": "1.1",
            "host": "demo-app",
            "short_message": f"user_login user={random.choice(['paul','sam','ada'])} i={i}",
            "timestamp": time.time(),
            "level": 6,
            "_trace_id": f"tr-{random.randint(1000,9999)}",
        }
        large = {
            "version": "1.1",
            "host": "demo-app",
            "short_message": "payment_attempt",
            "full_message": "".join(random.choice("abcdef ") for _ in range(6000)),
            "timestamp": time.time(),
            "_payment.amount": random.randint(5, 500),
            "_payment.currency": "GBP",
            "_items.0.sku": "A-1",
            "_items.1.sku": "B-2",
        }

        send_gelf(*target, short)
        send_gelf(*target, large, chunk_size=512)
        print(f"sent -> {target[0]}:{target[1]} i={i}")

        time.sleep(1)


if __name__ == "__main__":
    main()

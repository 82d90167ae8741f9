
from tcpsocket import open_runtime, SocketCallback

class Echo(SocketCallback):
    def __init__(self, runtime):
        self.runtime = runtime

    def socket_data_arrived(self, socket_id, user_data, msg, urgent):
        sock = self.runtime.sockets.get(socket_id)
        sock.send(msg.binary)

    def socket_peer_closed(self, socket_id, user_data):
        self.runtime.sockets.get(socket_id).close()

    def socket_closed(self, socket_id, user_data):
        # forked connections are done; drop them from the map
        self.runtime.release(self.runtime.sockets.get(socket_id))

class Client(SocketCallback):
    def socket_established(self, socket_id, user_data):
        print("connected:", socket_id)

    def socket_data_arrived(self, socket_id, user_data, msg, urgent):
        print("echo:", msg.binary)

    def socket_closed(self, socket_id, user_data):
        print("closed:", socket_id)

def main():
    # Server and client share one in-process loopback engine
    rt = open_runtime(transport="loopback", codec="msgpack")
    echo = Echo(rt)
    rt.on_new_socket = lambda sock: sock.set_callback(echo)

    server = rt.new_socket(echo)
    server.bind(7)
    server.listen()

    client = rt.new_socket(Client())
    client.connect("127.0.0.1", 7)
    client.send(b"hello over loopback")   # queued by the engine until established
    rt.drain()

    client.close()
    rt.drain()
    rt.release(client)
    print("sockets left:", len(rt.sockets))   # just the listener
    rt.close()

if __name__ == "__main__":
    main()

class ClientError(Exception): ...


class UsageError(ClientError): ...


class SocketCreateError(ClientError): ...


class AddressParseError(ClientError): ...


class ConnectError(ClientError): ...


# Covers both transport failures and the peer closing the stream
class ReadError(ClientError): ...

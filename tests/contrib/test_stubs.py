import unittest

from thrift.transport.TTransport import TTransportException

from thriftpool.contrib.stubs import ClusterStub


class ClusterStubCase(unittest.TestCase):

    def setUp(self):
        self.cluster = ClusterStub(['a:9160', 'b:9160'])
        self.cluster.set_handler('get', lambda key, column=None: (key, column))

    def test_connect(self):
        conn = self.cluster.connect('Keyspace1', 'a:9160', credentials=None)
        self.assertEqual(conn.server, 'a:9160')
        self.assertEqual(conn.keyspace, 'Keyspace1')
        self.assertEqual(conn.options, {'credentials': None})
        self.assertEqual(self.cluster.connections, [conn])
        self.assertEqual(self.cluster.open_attempts, ['a:9160'])

    def test_down(self):
        self.cluster.set_down('a:9160')
        self.assertRaises(TTransportException, self.cluster.connect, 'Keyspace1', 'a:9160')
        self.cluster.set_up('a:9160')
        self.cluster.connect('Keyspace1', 'a:9160')
        self.assertEqual(self.cluster.open_attempts, ['a:9160', 'a:9160'])

    def test_invoke(self):
        conn = self.cluster.connect('Keyspace1', 'b:9160')
        self.assertEqual(conn.invoke('get', 'key1', column='col'), ('key1', 'col'))
        self.assertEqual(self.cluster.calls, [('b:9160', 'get', ('key1',))])
        self.assertRaises(AttributeError, conn.invoke, 'insert', 'key1')

    def test_fail(self):
        conn = self.cluster.connect('Keyspace1', 'b:9160')
        error = TTransportException()
        self.cluster.fail('get', error, times=2)
        for i in range(2):
            self.assertRaises(TTransportException, conn.invoke, 'get', 'key1')
        self.assertEqual(conn.invoke('get', 'key1'), ('key1', None))

    def test_close(self):
        conn = self.cluster.connect('Keyspace1', 'b:9160')
        conn.close()
        conn.close()
        self.assertEqual(conn.close_count, 2)
        self.assertEqual(self.cluster.open_connections(), [])
        self.assertRaises(TTransportException, conn.invoke, 'get', 'key1')

import unittest
import uuid

from lib.scratch_store import (
    ScratchStore,
    active_store_count,
    build_dataset_key,
    scratch_store,
)


class ScratchStoreTests(unittest.TestCase):
    def setUp(self):
        self.job_id = uuid.uuid4().hex

    def test_write_then_read_all(self):
        with scratch_store(self.job_id) as store:
            store.write({"videos": [1, 2]})
            self.assertEqual(store.read_all(), [{"videos": [1, 2]}])
            self.assertEqual(store.name, build_dataset_key(self.job_id))

    def test_stores_are_isolated_per_job(self):
        with scratch_store(self.job_id) as a, scratch_store(uuid.uuid4().hex) as b:
            a.write({"videos": ["a"]})
            self.assertEqual(b.read_all(), [])

    def test_context_drops_on_exception(self):
        before = active_store_count()
        with self.assertRaises(ValueError):
            with scratch_store(self.job_id) as store:
                store.write({"videos": []})
                raise ValueError("boom")
        self.assertTrue(store.dropped)
        self.assertEqual(active_store_count(), before)

    def test_drop_is_idempotent_and_blocks_further_use(self):
        store = ScratchStore.open(self.job_id)
        store.drop()
        store.drop()
        with self.assertRaises(RuntimeError):
            store.write({"videos": []})
        with self.assertRaises(RuntimeError):
            store.read_all()

    def test_same_job_cannot_open_twice(self):
        with scratch_store(self.job_id):
            with self.assertRaises(RuntimeError):
                ScratchStore.open(self.job_id)


if __name__ == "__main__":
    unittest.main()

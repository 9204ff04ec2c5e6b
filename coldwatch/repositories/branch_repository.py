# coldwatch/repositories/branch_repository.py

from google.cloud.firestore_v1.base_query import FieldFilter

BRANCHES_COLLECTION = "branches"


class BranchRepository:

    def __init__(self, client):
        self.collection = client.collection(BRANCHES_COLLECTION)

    def get_branch_ids_by_region(self, region_id: str) -> list[str]:
        query = self.collection.where(filter=FieldFilter("regionId", "==", region_id))
        return [doc.id for doc in query.stream()]

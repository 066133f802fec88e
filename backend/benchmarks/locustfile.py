from locust import HttpUser, task, between

class KioskUser(HttpUser):
    wait_time = between(1, 3)

    def on_start(self):
        self.ticket = {
            "requestorName": "Load Test",
            "schoolId": "000000",
            "userLocation": "Benchmark School",
            "iiqUserId": "load-user",
            "assetTag": "LOAD-001",
            "problemDescription": "Screen flickers when the lid moves.",
        }

    @task(3)
    def history_context(self):
        self.client.get("/tickets/context", params={"iiqUserId": "load-user", "assetTag": "LOAD-001"})

    @task(1)
    def log_ticket(self):
        self.client.post("/tickets", json=self.ticket)

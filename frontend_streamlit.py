import streamlit as st
import requests

from config import API_BASE_URL

# ========================
# CONFIG
# ========================
BASE_URL = API_BASE_URL

st.set_page_config(
    page_title="Smart Document Intake - Streamlit",
    layout="wide"
)

# ========================
# STATE VARIABLES
# ========================
# requests.Session keeps the backend's session cookie between calls
if "http" not in st.session_state:
    st.session_state.http = requests.Session()

if "uploaded_docs" not in st.session_state:
    st.session_state.uploaded_docs = []

if "form_data" not in st.session_state:
    st.session_state.form_data = None

http: requests.Session = st.session_state.http


def _error_text(resp: requests.Response) -> str:
    try:
        return resp.json().get("detail", resp.text)
    except ValueError:
        return resp.text


@st.cache_data
def load_document_types():
    resp = requests.get(f"{BASE_URL}/documents/types")
    resp.raise_for_status()
    return resp.json()


# Title
st.title("Smart Document Intake (Streamlit Version)")

st.markdown("""
Upload images of your documents one by one → the fields are extracted automatically →
review the **pre-filled form** and submit.
""")

try:
    doc_types = load_document_types()
except requests.RequestException as e:
    st.error(f"Backend not reachable at {BASE_URL}: {e}")
    st.stop()

labels = {t["doc_type"]: t["label"].title() for t in doc_types}

# 1. DOCUMENT UPLOAD
st.header("1. Upload Documents")

selected_type = st.selectbox("Document type", list(labels), format_func=lambda t: labels[t])
uploaded_file = st.file_uploader("Upload an image of the document", type=["png", "jpg", "jpeg", "webp"])

if uploaded_file is not None:
    if st.button("Upload & Analyze"):
        with st.spinner("Analyzing document..."):
            files = {"document": (uploaded_file.name, uploaded_file.getvalue(), uploaded_file.type)}
            data = {"doc_type": selected_type}

            resp = http.post(f"{BASE_URL}/documents/analyze", files=files, data=data)

            if resp.status_code != 200:
                st.error(f"Error: {_error_text(resp)}")
            else:
                result = resp.json()
                st.session_state.uploaded_docs.append(result["message"])
                if result.get("missing_fields"):
                    st.warning("Not found on the document: " + ", ".join(result["missing_fields"]))
                st.success(result["message"])

if st.session_state.uploaded_docs:
    st.subheader("Uploaded so far")
    for msg in st.session_state.uploaded_docs:
        st.markdown(f"✅ {msg}")

# 2. PRE-FILLED FORM
st.header("2. Review & Submit")

if st.button("Load Form"):
    resp = http.get(f"{BASE_URL}/documents/session-data")
    body = resp.json()
    if body.get("success"):
        st.session_state.form_data = body["data"]
    else:
        st.session_state.form_data = None
        st.info(body.get("message", "No document data found in session."))

if st.session_state.form_data:
    fields_by_type = {t["doc_type"]: t["fields"] for t in doc_types}

    with st.form("intake_form"):
        for doc_type, values in st.session_state.form_data.items():
            st.subheader(labels.get(doc_type, doc_type.replace("-", " ").title()))
            # known types in their declared order, anything else as returned
            for field in fields_by_type.get(doc_type, list(values)):
                st.text_input(field, value=values.get(field, ""), key=f"{doc_type}.{field}")

        submitted = st.form_submit_button("Submit Form")

    if submitted:
        resp = http.post(f"{BASE_URL}/documents/submit")
        if resp.status_code != 200:
            st.error(f"Error: {_error_text(resp)}")
        else:
            st.success(resp.json()["message"])
            st.session_state.http = requests.Session()
            st.session_state.uploaded_docs = []
            st.session_state.form_data = None
